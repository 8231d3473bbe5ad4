from entropy_stream.cli import main

main()
