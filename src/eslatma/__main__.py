from eslatma.main import run

run()
