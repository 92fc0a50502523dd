"""
Strategic brief module.

A 16-section campaign brief attached to a pipeline or a project, with a
submit / approve / request-revision workflow. Exported for the project module,
which creates or links the brief when a pipeline is accepted.
"""
