from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model
from apps.organizations.models import Organization
from apps.identity.models import UserRole
from apps.apartments.models import Apartment, ApartmentStatus
from apps.apartments.resident_service import assign_resident
from apps.amenities.models import Amenity, AmenityType, PricingType
from apps.billing.models import Invoice, InvoiceStatus, InvoiceType, Transaction
from apps.billing.invoice_service import create_invoice
from apps.community.models import Post, PostType
from apps.maintenance.models import ServiceRequest, RequestCategory

User = get_user_model()

DEMO_PASSWORD = 'password123'


class Command(BaseCommand):
    help = 'Seeds the database with a demo apartment complex.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clean',
            action='store_true',
            help='Delete existing data before seeding',
        )
        parser.add_argument(
            '--users',
            action='store_true',
            help='Seed organization and users only',
        )
        parser.add_argument(
            '--apartments',
            action='store_true',
            help='Seed apartments and resident assignments only',
        )
        parser.add_argument(
            '--amenities',
            action='store_true',
            help='Seed amenities only',
        )
        parser.add_argument(
            '--billing',
            action='store_true',
            help='Seed invoices only',
        )

    def handle(self, *args, **options):
        seed_all = not any([
            options['users'], options['apartments'], options['amenities'], options['billing'],
        ])

        if options['clean']:
            self.stdout.write(self.style.WARNING('Cleaning database...'))
            self._clean_database()
            self.stdout.write(self.style.SUCCESS('Database cleaned.'))

        # Every part needs the organization
        org = self._get_or_create_org()

        if seed_all or options['users']:
            self._seed_users(org)

        if seed_all or options['apartments']:
            self._seed_apartments(org)

        if seed_all or options['amenities']:
            self._seed_amenities(org)

        if seed_all or options['billing']:
            self._seed_invoices(org)

        if seed_all:
            self._seed_activity(org)

        self.stdout.write(self.style.SUCCESS('Seeding completed successfully.'))

    def _clean_database(self):
        # Real FKs point at users, so children go first
        ServiceRequest.objects.all().delete()
        Post.objects.all().delete()
        Transaction.objects.all().delete()
        Invoice.objects.all().delete()
        Amenity.objects.all().delete()
        User.objects.exclude(is_superuser=True).delete()
        Apartment.objects.all().delete()
        Organization.objects.all().delete()

    def _get_or_create_org(self):
        org, created = Organization.objects.get_or_create(
            name="Sunrise Residence",
            defaults={
                'address': '12 Nguyen Hue, Quan 1, TP. Ho Chi Minh',
                'phone': '02838123456',
                'email': 'contact@sunrise.vn',
            }
        )
        if created:
            self.stdout.write(f'Created Organization: {org.name}')
        else:
            self.stdout.write(f'Using existing Organization: {org.name}')
        return org

    def _create_user(self, org, email, full_name, role, superuser=False):
        if User.objects.filter(email=email).exists():
            return User.objects.get(email=email)

        create = User.objects.create_superuser if superuser else User.objects.create_user
        user = create(
            username=email,
            email=email,
            password=DEMO_PASSWORD,
            full_name=full_name,
            org_id=org.id,
            role=role,
        )
        self.stdout.write(f' - Created {role} {email} ({DEMO_PASSWORD})')
        return user

    def _seed_users(self, org):
        self.stdout.write('Seeding Users...')
        self._create_user(org, 'admin@sunrise.vn', 'Quan Tri Vien', UserRole.ADMIN, superuser=True)
        self._create_user(org, 'staff@sunrise.vn', 'Nhan Vien Ky Thuat', UserRole.STAFF)
        self._create_user(org, 'an.nguyen@sunrise.vn', 'Nguyen Van An', UserRole.RESIDENT)
        self._create_user(org, 'binh.tran@sunrise.vn', 'Tran Thi Binh', UserRole.RESIDENT)

    def _seed_apartments(self, org):
        self.stdout.write('Seeding Apartments...')

        # Blocks A and B, floors 1-3, two units per floor
        for building in ('A', 'B'):
            for floor in range(1, 4):
                for unit in range(1, 3):
                    number = f"{building}{floor}0{unit}"
                    Apartment.objects.get_or_create(
                        org_id=org.id,
                        apartment_number=number,
                        defaults={
                            'building': building,
                            'floor': floor,
                            'area': Decimal('55.00') if unit == 1 else Decimal('72.50'),
                            'bedrooms': 1 if unit == 1 else 2,
                            'bathrooms': 1,
                            'rent_price': Decimal('6500000') if unit == 1 else Decimal('9000000'),
                            'description': f'Can ho {number}, toa {building}',
                            'amenities': ['Ban cong', 'May lanh'],
                        }
                    )
        self.stdout.write(' - Created 12 Apartments in blocks A and B')

        residents = User.objects.filter(org_id=org.id, role=UserRole.RESIDENT, apartment_id__isnull=True)
        vacant = Apartment.objects.filter(org_id=org.id, status=ApartmentStatus.AVAILABLE).order_by('apartment_number')
        today = timezone.localdate()

        for resident, apartment in zip(list(residents), list(vacant)):
            assign_resident(
                org_id=org.id,
                user_id=resident.id,
                apartment_id=apartment.id,
                move_in_date=today - timedelta(days=90),
                lease_start_date=today - timedelta(days=90),
                lease_end_date=today + timedelta(days=275),
                monthly_rent=apartment.rent_price,
                deposit_amount=apartment.rent_price * 2,
            )
            self.stdout.write(f' - Assigned {resident.email} to {apartment.apartment_number}')

    def _seed_amenities(self, org):
        self.stdout.write('Seeding Amenities...')

        amenities = [
            {
                'name': 'Ho boi',
                'amenity_type': AmenityType.FACILITY,
                'description': 'Ho boi ngoai troi tang thuong',
                'operating_hours': '06:00 - 21:00',
                'location': 'Tang 20, toa A',
                'capacity': 40,
                'pricing_type': PricingType.FREE,
            },
            {
                'name': 'Phong gym',
                'amenity_type': AmenityType.FACILITY,
                'description': 'Phong tap day du thiet bi',
                'operating_hours': '05:00 - 22:00',
                'location': 'Tang 2, toa B',
                'capacity': 25,
                'pricing_type': PricingType.SUBSCRIPTION,
                'price_amount': Decimal('300000'),
            },
            {
                'name': 'Giat ui',
                'amenity_type': AmenityType.SERVICE,
                'description': 'Dich vu giat ui lay trong ngay',
                'operating_hours': '08:00 - 18:00',
                'location': 'Tang tret, toa A',
                'pricing_type': PricingType.PAID,
                'price_amount': Decimal('50000'),
                'booking_required': True,
            },
        ]

        for data in amenities:
            Amenity.objects.get_or_create(org_id=org.id, name=data['name'], defaults=data)
        self.stdout.write(f' - Created {len(amenities)} Amenities')

    def _seed_invoices(self, org):
        self.stdout.write('Seeding Invoices...')

        today = timezone.localdate()
        residents = User.objects.filter(org_id=org.id, role=UserRole.RESIDENT, apartment_id__isnull=False)

        for resident in residents:
            if Invoice.objects.filter(user_id=resident.id).exists():
                continue

            create_invoice(
                org_id=org.id,
                user_id=resident.id,
                apartment_id=resident.apartment_id,
                invoice_type=InvoiceType.RENT,
                amount=resident.monthly_rent or Decimal('6500000'),
                due_date=today + timedelta(days=10),
                description=f'Tien thue thang {today:%m/%Y}',
            )
            overdue = create_invoice(
                org_id=org.id,
                user_id=resident.id,
                apartment_id=resident.apartment_id,
                invoice_type=InvoiceType.UTILITIES,
                amount=Decimal('850000'),
                issue_date=today - timedelta(days=40),
                due_date=today - timedelta(days=10),
                description='Dien nuoc thang truoc',
            )
            Invoice.objects.filter(id=overdue.id).update(status=InvoiceStatus.OVERDUE)
            self.stdout.write(f' - Created 2 Invoices for {resident.email}')

    def _seed_activity(self, org):
        self.stdout.write('Seeding Community and Service Requests...')

        resident = User.objects.filter(org_id=org.id, role=UserRole.RESIDENT, apartment_id__isnull=False).first()
        if not resident:
            return

        if not Post.objects.filter(org_id=org.id).exists():
            Post.objects.create(
                org_id=org.id,
                author=resident,
                content='Chao moi nguoi, cuoi tuan nay co ai muon choi cau long khong?',
                post_type=PostType.GENERAL,
            )
            self.stdout.write(' - Created 1 Post')

        if not ServiceRequest.objects.filter(org_id=org.id).exists():
            ServiceRequest.objects.create(
                org_id=org.id,
                user=resident,
                apartment_id=resident.apartment_id,
                title='Voi nuoc bon rua bi ri',
                description='Voi nuoc trong bep ri nuoc lien tuc',
                category=RequestCategory.PLUMBING,
            )
            self.stdout.write(' - Created 1 Service Request')
