"""
Inference Gateway Engine

Execution plan, message mapping, model instances and the per-request event
pipeline. Import from the submodules directly.
"""
