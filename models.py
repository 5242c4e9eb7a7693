from sqlalchemy import Column, Float, Integer, String, Index
from sqlalchemy.orm import declarative_base


Base = declarative_base()


class Movie(Base):
    __tablename__ = 'movies'

    # Column names match the catalog schema shared with the REST clients
    imdb_id = Column('IMDb_id', String(20), primary_key=True)
    title = Column('Title', String(500), nullable=False)
    year = Column('Year', Integer, nullable=False)
    rating = Column('Rating', Float, nullable=False)
    poster = Column('Poster', String(2000), nullable=True)

    __table_args__ = (
        Index('ix_movies_year', 'Year'),
        Index('ix_movies_rating', 'Rating'),
    )

    def to_dict(self) -> dict:
        """Serialise using the public field names; an unset poster becomes ``None``."""
        return {
            "IMDb_id": self.imdb_id,
            "Title": self.title,
            "Rating": self.rating,
            "Year": self.year,
            "Poster": self.poster,
        }

    def __repr__(self):
        return (
            f"<Movie(imdb_id='{self.imdb_id}', title='{self.title[:30]}', "
            f"year={self.year}, poster={'set' if self.poster else 'unset'})>"
        )


# Example usage:
if __name__ == "__main__":
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    engine = create_engine('sqlite:///./movies.db')
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    with Session() as session:
        session.add(Movie(imdb_id="tt0000001", title="Carmencita", year=1894, rating=5.7))
        session.commit()
        print(session.get(Movie, "tt0000001"))
