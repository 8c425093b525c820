from gcs_origin.cli import main

if __name__ == "__main__":
    main(["serve"])
