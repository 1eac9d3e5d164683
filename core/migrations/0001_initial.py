import core.validators
import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('city', models.CharField(blank=True, default='', max_length=100, verbose_name='city')),
                ('state', models.CharField(blank=True, default='', max_length=100, verbose_name='state')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the account was created.', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the account was last updated.', verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Book',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255, verbose_name='title')),
                ('authors', models.CharField(blank=True, default='', help_text='Comma-separated author names', max_length=500, verbose_name='authors')),
                ('isbn', models.CharField(blank=True, default='', max_length=17, validators=[core.validators.validate_isbn], verbose_name='ISBN')),
                ('condition', models.CharField(choices=[('AS_NEW', 'As New'), ('FINE', 'Fine'), ('VERY_GOOD', 'Very Good'), ('GOOD', 'Good'), ('FAIR', 'Fair'), ('POOR', 'Poor')], default='GOOD', max_length=20, verbose_name='condition')),
                ('genre', models.CharField(blank=True, default='', max_length=100, verbose_name='genre')),
                ('description', models.TextField(blank=True, default='', verbose_name='description')),
                ('is_available', models.BooleanField(default=True, help_text='False while the book is held by an active swap request', verbose_name='available')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('owner', models.ForeignKey(help_text='Current holder of the book', on_delete=django.db.models.deletion.PROTECT, related_name='books', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'book',
                'verbose_name_plural': 'books',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['owner'], name='core_book_owner_i_7c2b1e_idx'),
                    models.Index(fields=['is_available'], name='core_book_is_avai_4f3d0a_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SwapRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('COUNTER_OFFER', 'Counter Offer'), ('ACCEPTED', 'Accepted'), ('CANCELLED', 'Cancelled'), ('COMPLETED', 'Completed')], default='PENDING', max_length=20, verbose_name='status')),
                ('message', models.TextField(blank=True, null=True, validators=[django.core.validators.MaxLengthValidator(1000)], verbose_name='message')),
                ('counter_offer_message', models.TextField(blank=True, null=True, validators=[django.core.validators.MaxLengthValidator(1000)], verbose_name='counter-offer message')),
                ('requester_completed_at', models.DateTimeField(blank=True, null=True)),
                ('owner_completed_at', models.DateTimeField(blank=True, null=True)),
                ('requester_rating', models.PositiveSmallIntegerField(blank=True, help_text='Rating given by the requester (1-5 stars)', null=True, validators=[core.validators.validate_rating])),
                ('owner_rating', models.PositiveSmallIntegerField(blank=True, help_text='Rating given by the owner (1-5 stars)', null=True, validators=[core.validators.validate_rating])),
                ('requester_feedback', models.TextField(blank=True, null=True, validators=[django.core.validators.MaxLengthValidator(2000)])),
                ('owner_feedback', models.TextField(blank=True, null=True, validators=[django.core.validators.MaxLengthValidator(2000)])),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('book', models.ForeignKey(help_text='Requested book', on_delete=django.db.models.deletion.PROTECT, related_name='swap_requests', to='core.book')),
                ('cancelled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('counter_offered_book', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='counter_offered_in_swap_requests', to='core.book')),
                ('offered_book', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='offered_in_swap_requests', to='core.book')),
                ('owner', models.ForeignKey(help_text='Owner of the requested book when the request was created', on_delete=django.db.models.deletion.PROTECT, related_name='incoming_swap_requests', to=settings.AUTH_USER_MODEL)),
                ('requester', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='outgoing_swap_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'swap request',
                'verbose_name_plural': 'swap requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['requester', 'status'], name='core_swapre_request_5b8e2c_idx'),
                    models.Index(fields=['owner', 'status'], name='core_swapre_owner_i_9d41f7_idx'),
                    models.Index(fields=['status'], name='core_swapre_status_0e6a3b_idx'),
                    models.Index(fields=['completed_at'], name='core_swapre_complet_a2c9d4_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status__in', ['PENDING', 'COUNTER_OFFER', 'ACCEPTED'])), fields=('book',), name='unique_active_swap_per_requested_book'),
                    models.CheckConstraint(condition=models.Q(('requester', models.F('owner')), _negated=True), name='swap_requester_is_not_owner'),
                    models.CheckConstraint(condition=models.Q(('requester_rating__isnull', True), models.Q(('requester_rating__gte', 1), ('requester_rating__lte', 5)), _connector='OR'), name='swap_requester_rating_range'),
                    models.CheckConstraint(condition=models.Q(('owner_rating__isnull', True), models.Q(('owner_rating__gte', 1), ('owner_rating__lte', 5)), _connector='OR'), name='swap_owner_rating_range'),
                ],
            },
        ),
    ]
