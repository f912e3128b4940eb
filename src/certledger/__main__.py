# certledger/__main__.py

from certledger.cli import main

raise SystemExit(main())
