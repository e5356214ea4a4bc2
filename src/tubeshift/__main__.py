from tubeshift.cli import main

main()
