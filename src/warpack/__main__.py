from warpack.cli import main

main()
