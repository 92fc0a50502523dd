"""Report module: weekly / monthly / custom project reports rendered to PDF or Excel."""
