import sys

from sendemail.cli import main


sys.exit(main())
