"""Calendar module: events, attendees, recurrence expansion and the task deadline feed."""
