"""Infrastructure layer — filesystem access, schema loading, templates.

Adapters here return domain ``Result`` values so the pipeline never has to
catch I/O exceptions itself.
"""
