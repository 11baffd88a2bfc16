from pushfanout.cli import main

main()
