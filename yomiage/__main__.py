from yomiage.cli import main

main()
