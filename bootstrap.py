import logging

from gradebook.db import Base, SessionLocal, engine
from gradebook.services.auth_service import ensure_bootstrap_admin


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')
logger = logging.getLogger('bootstrap')


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        result = ensure_bootstrap_admin(db)
        if result.get('seeded'):
            logger.info('Bootstrap admin created')
        else:
            logger.info('Bootstrap admin skipped: %s', result.get('reason'))
    finally:
        db.close()


if __name__ == '__main__':
    main()
