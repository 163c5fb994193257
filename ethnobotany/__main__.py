import sys

from ethnobotany.analysis import main

sys.exit(main())
