from django.contrib import admin
from .models import Aircraft, Booking, Instructor, Notification, RescheduleRequest, School, Student, WeatherCheck

@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ['name', 'airport_code', 'weather_api_enabled']

@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['name', 'school', 'training_level', 'is_active']
    list_filter = ['training_level', 'is_active']

@admin.register(Instructor)
class InstructorAdmin(admin.ModelAdmin):
    list_display = ['name', 'school', 'is_active']

@admin.register(Aircraft)
class AircraftAdmin(admin.ModelAdmin):
    list_display = ['tail_number', 'aircraft_type', 'status', 'is_imc_capable']
    list_filter = ['status']

@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['booking_number', 'student', 'aircraft', 'scheduled_start', 'status']
    list_filter = ['status', 'flight_type']

@admin.register(WeatherCheck)
class WeatherCheckAdmin(admin.ModelAdmin):
    list_display = ['location', 'booking', 'result', 'confidence', 'checked_at']
    list_filter = ['result', 'check_type']

@admin.register(RescheduleRequest)
class RescheduleRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'status', 'generator', 'expires_at']
    list_filter = ['status', 'generator']

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['notification_type', 'recipient_type', 'channel', 'status', 'created_at']
    list_filter = ['notification_type', 'status']
