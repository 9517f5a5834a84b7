import sys

from template_fleet_sync.cli import main

sys.exit(main())
