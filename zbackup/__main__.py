from zbackup.cli import main

main()
