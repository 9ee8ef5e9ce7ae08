from atmfjstc.lib.drs_file.cli import main


if __name__ == '__main__':
    main()
