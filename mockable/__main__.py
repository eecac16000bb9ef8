from mockable.cli import main

raise SystemExit(main())
