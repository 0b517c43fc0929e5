import sys

from refwatch.app import main

sys.exit(main())
