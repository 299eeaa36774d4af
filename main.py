"""gen-ammo — turn web server access logs into load-testing ammo."""

import sys

from ammogen.cli import main

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
