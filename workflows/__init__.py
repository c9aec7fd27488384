"""
Workflows Package — signal strategies built on the hourwatch platform.

Convention:
  workflows/
    my_workflow/
      __init__.py      # Exports the strategy entry points
      settings.py      # Strategy tunables (pydantic-settings)
      models.py        # Domain models
"""
