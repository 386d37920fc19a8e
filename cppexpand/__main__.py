"""Entry point for ``python -m cppexpand``."""

from cppexpand.main import main

raise SystemExit(main())
