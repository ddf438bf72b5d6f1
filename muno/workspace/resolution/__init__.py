"""Tree resolution for the workspace engine.

This package contains the components that keep the logical, declared and
physical trees consistent:

- **references**: Config reference resolution (``file:`` ref -> loadable location)
- **paths**: Path translation (logical path <-> physical directory, per-level ``repos_dir``)
- **expander**: Recursive expansion (link configs, clone repositories, register children)
"""
