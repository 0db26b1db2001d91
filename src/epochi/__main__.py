from epochi.cli.app import main

main()
