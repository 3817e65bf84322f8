from opentrace.cli import main

raise SystemExit(main())
