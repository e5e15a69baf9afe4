"""Command-line interface modules for revstat pipeline execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from revstat.cli.run_pipeline import run_pipeline, load_user_config_dict

__all__ = ['run_pipeline', 'load_user_config_dict']
