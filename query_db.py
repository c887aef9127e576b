from sqlalchemy import select
from app.core import database
from app.models.disposal_records import disposal_certificates, disposal_requests


def main():
    engine = database.engine
    with engine.connect() as conn:
        requests = conn.execute(
            select(disposal_requests.c.id, disposal_requests.c.asset_tag, disposal_requests.c.status)
            .order_by(disposal_requests.c.id.desc())
            .limit(10)
        ).fetchall()
        if not requests:
            print("No disposal requests found in the database.")
            return
        print("Latest disposal requests:")
        for r in requests:
            print(f" - #{r.id} {r.asset_tag} [{r.status}]")

        certificates = conn.execute(
            select(disposal_certificates.c.folio, disposal_certificates.c.verification_code, disposal_certificates.c.asset_tag)
            .order_by(disposal_certificates.c.id.desc())
            .limit(10)
        ).fetchall()
        print("\nIssued certificates:\n")
        if not certificates:
            print("(no rows)")
            return
        for c in certificates:
            print(f" - {c.folio}  {c.verification_code}  {c.asset_tag}")


if __name__ == '__main__':
    main()
