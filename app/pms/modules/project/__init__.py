"""
Project module.

Owns the unified pipeline/project record, its team, stage history and the
weighted delivery phases. Accepting a pipeline goes through ProjectService.decide().
"""
