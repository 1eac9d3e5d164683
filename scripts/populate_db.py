import os
import sys
import django
import random
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bookswap.settings')
django.setup()

from core import services
from core.exceptions import SwapError
from core.models import User, Book

fake = Faker()

GENRES = [
    "Fiction", "Mystery", "Science Fiction", "Fantasy", "Biography",
    "History", "Poetry", "Cookbooks", "Travel", "Philosophy",
]


def create_users(num_users=20):
    print(f"Creating {num_users} users...")
    users = []

    for _ in range(num_users):
        username = fake.unique.user_name()
        email = f"{username}@{fake.free_email_domain()}"
        user = User.objects.create_user(
            username=username,
            email=email,
            password='password123',
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            city=fake.city(),
            state=fake.state_abbr(),
        )
        users.append(user)

    print(f"Created {len(users)} users.")
    return users


def create_books(users):
    print("Creating books...")
    books = []
    conditions = [choice[0] for choice in Book.CONDITION_CHOICES]

    for user in users:
        # Each user lists 2-6 books
        for _ in range(random.randint(2, 6)):
            book = Book.objects.create(
                owner=user,
                title=fake.sentence(nb_words=random.randint(2, 5)).rstrip('.'),
                authors=fake.name(),
                isbn=fake.isbn13(),
                condition=random.choice(conditions),
                genre=random.choice(GENRES),
                description=fake.paragraph(nb_sentences=3),
            )
            books.append(book)

    print(f"Created {len(books)} books.")
    return books


def create_swaps(users, num_swaps=40):
    """Open swap requests through the service layer and move some of them along."""
    print("Creating swap requests...")
    created = 0
    skipped = 0

    for _ in range(num_swaps):
        requester = random.choice(users)
        candidates = list(Book.objects.filter(is_available=True).exclude(owner=requester))
        if not candidates:
            break
        book = random.choice(candidates)

        offered = None
        own_books = list(Book.objects.filter(owner=requester, is_available=True))
        if own_books and random.random() < 0.8:
            offered = random.choice(own_books)

        try:
            swap = services.create_swap_request(
                requester,
                book.pk,
                offered_book_id=offered.pk if offered else None,
                message=fake.sentence() if random.random() < 0.5 else None,
            )
            created += 1
            advance_swap(swap, book.owner)
        except SwapError as e:
            skipped += 1
            print(f"  Skipped swap for book {book.pk}: {e.message}")

    print(f"Created {created} swap requests ({skipped} skipped).")


def advance_swap(swap, owner):
    outcome = random.choice(['pending', 'counter', 'accepted', 'cancelled', 'completed', 'completed'])
    requester = swap.requester

    if outcome == 'pending':
        return

    if outcome == 'cancelled':
        services.cancel_swap_request(random.choice([requester, owner]), swap.pk)
        return

    if outcome == 'counter':
        counter_books = list(Book.objects.filter(owner=owner, is_available=True))
        if counter_books:
            services.make_counter_offer(
                owner, swap.pk, random.choice(counter_books).pk, message=fake.sentence()
            )
        return

    services.accept_swap_request(owner, swap.pk)
    if outcome == 'accepted':
        return

    services.complete_swap_request(
        requester, swap.pk,
        rating=random.randint(3, 5),
        feedback=fake.sentence() if random.random() < 0.5 else None,
    )
    services.complete_swap_request(
        owner, swap.pk,
        rating=random.randint(1, 5) if random.random() < 0.7 else None,
    )


def main():
    print("Starting database population...")

    # Create Users
    users = create_users(num_users=20)

    # Create Books
    create_books(users)

    # Create Swaps
    create_swaps(users)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
