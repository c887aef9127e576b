from app.core.database import engine
from app.models.disposal_records import metadata


def main():
    metadata.create_all(engine)
    print("Created tables:", list(metadata.tables.keys()))


if __name__ == '__main__':
    main()
