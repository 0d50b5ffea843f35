from options_analytics.cli import main

raise SystemExit(main())
