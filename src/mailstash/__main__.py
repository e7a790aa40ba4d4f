# =============================================================================
# mailstash Entry Point for `python -m mailstash`
# =============================================================================
# Equivalent to running the 'mailstash' command after installation.
# =============================================================================

import sys

from mailstash.app import main

if __name__ == "__main__":
    sys.exit(main())
