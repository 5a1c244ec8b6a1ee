from symbolicate.cli import main

main()
