from offlinerelay.cli import main

main()
