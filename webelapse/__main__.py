from webelapse.recorder import main

raise SystemExit(main())
