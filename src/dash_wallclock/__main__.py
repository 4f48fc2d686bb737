from dash_wallclock.main import main

raise SystemExit(main())
