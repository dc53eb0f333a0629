import sys

from asset_api.server import main

sys.exit(main())
