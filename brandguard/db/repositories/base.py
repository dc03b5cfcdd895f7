from sqlalchemy.orm import Session


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    @property
    def dialect_name(self) -> str:
        bind = self.session.get_bind()
        return bind.dialect.name
