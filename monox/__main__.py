from monox.cli import main

main()
