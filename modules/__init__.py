"""County Processing Modules

This package contains the processing modules built on the ``counties``
framework core. Each module owns its models, processing logic, command-line
entry point and tests.
"""
