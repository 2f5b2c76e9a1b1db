# Standard library imports
import sys

# Custom library imports
from sql_runner.cli import main


sys.exit(main())
