from metalcloud_cli.cli.main import main

main()
