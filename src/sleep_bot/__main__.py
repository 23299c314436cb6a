"""Sleep bot entry point (``python -m sleep_bot``)"""

from sleep_bot.run import main


if __name__ == "__main__":
    main()
