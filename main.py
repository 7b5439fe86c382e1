from docketwatch.main import main

if __name__ == "__main__":
    # Equivalent to the installed ``docketwatch`` console script.
    raise SystemExit(main())
