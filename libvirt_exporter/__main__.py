from libvirt_exporter.exporter import main

main()
