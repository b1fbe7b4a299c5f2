from django.contrib import admin
from django.urls import path

# The compliance engine is driven by management commands and by calls
# from the rest of the site. The admin is its only web interface.
urlpatterns = [
	path('admin/', admin.site.urls),
]
