from cartlink.cli.main import main

raise SystemExit(main())
