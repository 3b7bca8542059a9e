"""Allow `python -m ado_exporter`."""

import sys

from ado_exporter.cli import main

sys.exit(main())
