from BOARDVOTE.cli import main

main()
