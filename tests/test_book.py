from book import GUEST_USER_ID, Book, Profile, guest_profile, sample_books

STAMP = "2024-09-01T12:00:00.000000+00:00"


def test_book_str_shows_course_and_price():
    book = sample_books(STAMP)[1]
    assert str(book) == "Calculus for Engineers (MAT 265) $55.00"


def test_profile_str_falls_back_to_email():
    assert str(guest_profile(STAMP)) == "Guest User <guest@asu.edu>"
    assert str(Profile(id="p1", email="sparky@asu.edu")) == "sparky@asu.edu <sparky@asu.edu>"


def test_book_status_round_trips_through_status_column():
    book = sample_books(STAMP)[0]
    row = dict(book.to_dict(), status="sold")
    row.pop("is_sold")
    restored = Book.from_dict(row)
    assert restored.is_sold is True
    assert restored.status == "sold"
    assert restored.seller_id == GUEST_USER_ID
